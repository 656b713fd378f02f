"""Token-flow networks: data structure, builder and ODE integration."""

from .builder import NetworkBuilder
from .net import Arc, ArcKind, PetriNet, Place, PlaceRole, Transition, TransitionRole
from .solver import Integrator, SerialIntegrator, Trajectory, Tsit5Integrator

__all__ = [
    "Arc",
    "ArcKind",
    "Integrator",
    "NetworkBuilder",
    "PetriNet",
    "Place",
    "PlaceRole",
    "SerialIntegrator",
    "Trajectory",
    "Transition",
    "TransitionRole",
    "Tsit5Integrator",
]
