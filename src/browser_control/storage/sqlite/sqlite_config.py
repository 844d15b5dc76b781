from dataclasses import asdict, dataclass, field


@dataclass
class SQLiteConfig:
    """Configuration for the embedded SQLite session store."""

    database: str = field(
        default=":memory:",
        metadata={"help": "Path to the SQLite database file, or ':memory:'."},
    )
    primary_key: str = field(
        default="id",
        metadata={"help": "Primary key column shared by every table."},
    )

    def to_dict(self):
        return asdict(self)
