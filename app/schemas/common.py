from typing import Generic, List, Type, TypeVar

from pydantic import BaseModel

T = TypeVar("T")
S = TypeVar("S", bound=BaseModel)


class Page(BaseModel, Generic[T]):
    """Envoltorio de listados paginados con skip/limit"""
    items: List[T]
    total: int
    skip: int
    limit: int


def to_page(page: Page, schema: Type[S]) -> Page[S]:
    """Convierte una página de objetos ORM en una página del schema de respuesta."""
    return Page[schema](
        items=[schema.model_validate(item) for item in page.items],
        total=page.total,
        skip=page.skip,
        limit=page.limit,
    )


class SweepResult(BaseModel):
    affected: int
    errors: List[str] = []
