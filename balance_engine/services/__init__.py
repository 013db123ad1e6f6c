"""Small pure helpers shared by the balance subsystems and the coordinator."""
