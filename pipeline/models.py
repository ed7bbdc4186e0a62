"""Data models for the Master Games index pipeline."""

from dataclasses import asdict, dataclass, field

CHUNK_SIZE = 4000
INDEX_VERSION = "1.0"


@dataclass
class GameRecord:
    """One master game. Immutable once written to a chunk."""

    idx: int
    white: str = ""
    black: str = ""
    whiteElo: int = 0
    blackElo: int = 0
    whiteTitle: str | None = None
    blackTitle: str | None = None
    result: str = ""
    date: str = ""
    event: str = ""
    site: str = ""
    eco: str | None = None
    opening: str | None = None
    variation: str | None = None
    moves: str = ""
    ply: int = 0
    source: str = ""
    sourceFile: str = ""
    # Classifier annotation, absent when classification failed
    ecoJsonFen: str | None = None
    ecoJsonOpening: str | None = None
    ecoJsonEco: str | None = None
    movesBack: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "GameRecord":
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @property
    def is_classified(self) -> bool:
        return bool(self.ecoJsonOpening and self.ecoJsonFen)


@dataclass
class Chunk:
    """Fixed-capacity run of games covering [startIdx, endIdx)."""

    chunkId: int
    startIdx: int
    endIdx: int
    totalChunks: int = 0
    games: list[GameRecord] = field(default_factory=list)
    version: str = INDEX_VERSION

    @classmethod
    def from_dict(cls, data: dict) -> "Chunk":
        return cls(
            chunkId=data["chunkId"],
            startIdx=data["startIdx"],
            endIdx=data["endIdx"],
            totalChunks=data.get("totalChunks", 0),
            games=[GameRecord.from_dict(g) for g in data.get("games", [])],
            version=data.get("version", INDEX_VERSION),
        )

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "chunkId": self.chunkId,
            "totalChunks": self.totalChunks,
            "startIdx": self.startIdx,
            "endIdx": self.endIdx,
            "games": [g.to_dict() for g in self.games],
        }


@dataclass
class ChunkRef:
    id: int
    blobKey: str
    startIdx: int
    endIdx: int
    gameCount: int = 0


@dataclass
class ChunkManifest:
    """Top-level pointer file: chunk id -> index range."""

    totalGames: int = 0
    totalChunks: int = 0
    chunks: list[ChunkRef] = field(default_factory=list)
    version: str = INDEX_VERSION

    @classmethod
    def from_dict(cls, data: dict) -> "ChunkManifest":
        return cls(
            totalGames=data.get("totalGames", 0),
            totalChunks=data.get("totalChunks", 0),
            chunks=[ChunkRef(**c) for c in data.get("chunks", [])],
            version=data.get("version", INDEX_VERSION),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class OpeningIndexEntry:
    """Name index value: canonical descriptor, code and games in ingestion order."""

    fen: str
    eco: str = ""
    gameIds: list[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "OpeningIndexEntry":
        return cls(fen=data["fen"], eco=data.get("eco", ""), gameIds=list(data.get("gameIds", [])))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class OpeningSummary:
    name: str
    fen: str
    eco: str
    gameCount: int = 0

    def key(self) -> tuple[str, str, str]:
        return (self.name, self.eco, self.fen)


@dataclass
class PlayerCount:
    playerName: str
    gameCount: int = 0
