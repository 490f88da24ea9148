"""Router package exports."""
from . import clients, commissions, distributors, qualification

__all__ = [
	"clients",
	"commissions",
	"distributors",
	"qualification",
]
