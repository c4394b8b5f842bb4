from dataclasses import dataclass

@dataclass(frozen=True)
class SourceFile:
    path: str   # absolute
    name: str
    size: int   # bytes
    index: int  # position in scan order
