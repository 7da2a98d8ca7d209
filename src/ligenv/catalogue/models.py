from pydantic import BaseModel


class AminoAcid(BaseModel):
    """Model for an amino acid."""

    description: str
    long_name: str
    short_name: str

    def __hash__(self):
        return hash(self.long_name)


class ResidueCategory(BaseModel):
    """Display category of residues, keyed by one-letter codes."""

    name: str
    codes: list[str]

    def __hash__(self):
        return hash(self.name)
