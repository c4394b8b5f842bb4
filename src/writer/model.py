from dataclasses import dataclass

@dataclass(frozen=True)
class WriteResult:
    output_path: str   # absolute
    page_count: int
    object_count: int
    byte_count: int
