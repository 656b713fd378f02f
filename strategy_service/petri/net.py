"""Token-flow network data structures.

A PetriNet holds places (token containers with an initial marking),
transitions (firing events) and arcs between them. Arcs come in two kinds:

- ``ArcKind.NORMAL``: place -> transition consumes, transition -> place
  produces.
- ``ArcKind.READ``: place -> transition only. The transition's rate depends
  on the place's mass but firing leaves that mass unchanged. Read arcs are
  the only way a transition may test a place without depleting it, which
  keeps "history never net-decreases" true by construction.

``to_dict`` / ``from_dict`` speak the JSON-LD shape used by pflow.xyz, where
a read arc is written as a consume/restore arc pair.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

__all__ = [
    "Arc",
    "ArcKind",
    "PetriNet",
    "Place",
    "PlaceRole",
    "Transition",
    "TransitionRole",
]

PFLOW_CONTEXT = "https://pflow.xyz/schema"


class ArcKind(str, Enum):
    NORMAL = "normal"
    READ = "read"


class PlaceRole(str, Enum):
    OCCUPANCY = "occupancy"
    HISTORY = "history"
    TURN = "turn"
    WIN = "win"
    DEFAULT = "default"


class TransitionRole(str, Enum):
    MOVE = "move"
    WIN = "win"
    DEFAULT = "default"


@dataclass
class Place:
    label: str
    initial: float = 0.0
    capacity: Optional[float] = None
    role: PlaceRole = PlaceRole.DEFAULT


@dataclass
class Transition:
    label: str
    role: TransitionRole = TransitionRole.DEFAULT
    rate: float = 1.0


@dataclass(frozen=True)
class Arc:
    source: str
    target: str
    weight: float = 1.0
    kind: ArcKind = ArcKind.NORMAL


@dataclass
class PetriNet:
    """Named collection of places, transitions and arcs.

    Places and transitions keep insertion order, so a builder that adds them
    in a fixed order produces identical nets on every call.
    """

    name: str = "net"
    places: Dict[str, Place] = field(default_factory=dict)
    transitions: Dict[str, Transition] = field(default_factory=dict)
    arcs: List[Arc] = field(default_factory=list)

    def add_place(
        self,
        label: str,
        initial: float = 0.0,
        capacity: Optional[float] = None,
        role: PlaceRole = PlaceRole.DEFAULT,
    ) -> Place:
        if label in self.places or label in self.transitions:
            raise ValueError(f"Duplicate node label: {label}")
        place = Place(label=label, initial=float(initial), capacity=capacity, role=role)
        self.places[label] = place
        return place

    def add_transition(
        self,
        label: str,
        role: TransitionRole = TransitionRole.DEFAULT,
        rate: float = 1.0,
    ) -> Transition:
        if label in self.places or label in self.transitions:
            raise ValueError(f"Duplicate node label: {label}")
        transition = Transition(label=label, role=role, rate=rate)
        self.transitions[label] = transition
        return transition

    def add_arc(self, source: str, target: str, weight: float = 1.0) -> Arc:
        """Add a consuming (place->transition) or producing (transition->place) arc."""
        source_is_place = source in self.places
        target_is_place = target in self.places
        if source_is_place == target_is_place:
            raise ValueError(f"Arc must join a place and a transition: {source} -> {target}")
        if (source not in self.transitions) and (target not in self.transitions):
            raise ValueError(f"Unknown transition on arc: {source} -> {target}")
        arc = Arc(source=source, target=target, weight=float(weight))
        self.arcs.append(arc)
        return arc

    def add_read_arc(self, place: str, transition: str, weight: float = 1.0) -> Arc:
        """Add a non-destructive test of `place` by `transition`."""
        if place not in self.places or transition not in self.transitions:
            raise ValueError(f"Read arc must go from a place to a transition: {place} -> {transition}")
        arc = Arc(source=place, target=transition, weight=float(weight), kind=ArcKind.READ)
        self.arcs.append(arc)
        return arc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def inputs(self, transition: str) -> Iterator[Arc]:
        """Arcs feeding `transition`, normal and read."""
        return (a for a in self.arcs if a.target == transition)

    def outputs(self, transition: str) -> Iterator[Arc]:
        return (a for a in self.arcs if a.source == transition)

    def arcs_from_place(self, place: str) -> List[Arc]:
        return [a for a in self.arcs if a.source == place]

    def places_with_role(self, role: PlaceRole) -> List[Place]:
        return [p for p in self.places.values() if p.role == role]

    def transitions_with_role(self, role: TransitionRole) -> List[Transition]:
        return [t for t in self.transitions.values() if t.role == role]

    def initial_state(self) -> Dict[str, float]:
        return {label: place.initial for label, place in self.places.items()}

    def rates(self) -> Dict[str, float]:
        return {label: t.rate for label, t in self.transitions.items()}

    def structure_key(self) -> tuple:
        """Hashable summary of identifiers and wiring, for determinism checks."""
        return (
            tuple(self.places),
            tuple(self.transitions),
            tuple((a.source, a.target, a.weight, a.kind.value) for a in self.arcs),
        )

    # ------------------------------------------------------------------
    # JSON-LD
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        places: Dict[str, Any] = {}
        for label, place in self.places.items():
            entry: Dict[str, Any] = {
                "@type": "Place",
                "initial": [place.initial],
                "role": place.role.value,
            }
            if place.capacity is not None:
                entry["capacity"] = [place.capacity]
            places[label] = entry

        transitions = {
            label: {"@type": "Transition", "role": t.role.value}
            for label, t in self.transitions.items()
        }

        arcs: List[Dict[str, Any]] = []
        for arc in self.arcs:
            arcs.append({"@type": "Arrow", "source": arc.source, "target": arc.target,
                         "weight": [arc.weight]})
            if arc.kind == ArcKind.READ:
                arcs.append({"@type": "Arrow", "source": arc.target, "target": arc.source,
                             "weight": [arc.weight]})

        return {
            "@context": PFLOW_CONTEXT,
            "@type": "PetriNet",
            "name": self.name,
            "places": places,
            "transitions": transitions,
            "arcs": arcs,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PetriNet":
        """Load a pflow JSON-LD net; consume/restore arc pairs become read arcs."""
        net = cls(name=str(data.get("name") or "net"))
        for label, entry in (data.get("places") or {}).items():
            initial = sum(entry.get("initial") or [0])
            capacity = entry.get("capacity") or []
            role = PlaceRole(entry["role"]) if entry.get("role") else PlaceRole.DEFAULT
            net.add_place(label, initial, sum(capacity) if capacity else None, role)
        for label, entry in (data.get("transitions") or {}).items():
            role = entry.get("role") or "default"
            try:
                t_role = TransitionRole(role)
            except ValueError:
                t_role = TransitionRole.DEFAULT
            net.add_transition(label, t_role)

        raw_arcs = [
            (a["source"], a["target"], float(sum(a.get("weight") or [1])))
            for a in (data.get("arcs") or [])
        ]
        pending = list(raw_arcs)
        while pending:
            source, target, weight = pending.pop(0)
            restore = (target, source, weight)
            if source in net.places and restore in pending:
                pending.remove(restore)
                net.add_read_arc(source, target, weight)
            else:
                net.add_arc(source, target, weight)
        return net

    def __repr__(self) -> str:
        return (
            f"PetriNet(name={self.name!r}, places={len(self.places)}, "
            f"transitions={len(self.transitions)}, arcs={len(self.arcs)})"
        )
