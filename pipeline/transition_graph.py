"""
Transition graph: one-ply adjacency between positions.

Keys are position-only FENs; values are full FENs of the neighbouring
states. ``to`` holds forward edges (next positions), ``from`` backward
edges (previous positions). The graph is produced upstream and loaded
as-is; nothing here validates that it is acyclic.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

from positions import position_fen


@dataclass
class TransitionGraph:
    to: dict[str, list[str]] = field(default_factory=dict)
    frm: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict | None) -> "TransitionGraph":
        data = data or {}
        return cls(to=dict(data.get("to", {})), frm=dict(data.get("from", {})))

    @classmethod
    def load(cls, path: str | Path) -> "TransitionGraph":
        with open(path, encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> dict:
        return {"to": self.to, "from": self.frm}

    def next_fens(self, position: str) -> list[str]:
        return self.to.get(position, [])

    def previous_fens(self, position: str) -> list[str]:
        return self.frm.get(position, [])

    def transitions(self, fen: str) -> dict:
        """Neighbourhood of a FEN: {"next": [...], "from": [...]}."""
        position = position_fen(fen)
        return {"next": list(self.next_fens(position)), "from": list(self.previous_fens(position))}
