from pydantic import BaseModel


class MarkAllReadOut(BaseModel):
    ok: bool = True
    updated: int
