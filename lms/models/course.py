"""Catalog documents: Course -> Module -> Lecture.

A course is stored and replaced as one document.  Modules and lectures
are embedded, addressed by their IDs and never hold a reference back to
their parent; all edits produce a new frozen Course via ``replace``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from uuid import uuid4


def _new_id() -> str:
    return str(uuid4())


def _now() -> int:
    return int(time.time())


@dataclass(frozen=True, slots=True)
class AssetRef:
    """Reference to a binary already stored elsewhere (thumbnail, PDF)."""

    public_id: str
    url: str

    def is_valid(self) -> bool:
        return bool(self.public_id.strip()) and bool(self.url.strip())


@dataclass(frozen=True, slots=True)
class Lecture:
    id: str
    title: str
    video_url: str
    pdf_notes: tuple[AssetRef, ...] = ()

    @staticmethod
    def new(
        *,
        title: str,
        video_url: str,
        pdf_notes: tuple[AssetRef, ...] = (),
        id: str | None = None,
    ) -> Lecture:
        return Lecture(
            id=id or _new_id(), title=title, video_url=video_url, pdf_notes=pdf_notes
        )


@dataclass(frozen=True, slots=True)
class Module:
    id: str
    title: str
    module_number: int
    lectures: tuple[Lecture, ...] = ()

    @staticmethod
    def new(
        *,
        title: str,
        module_number: int,
        lectures: tuple[Lecture, ...] = (),
        id: str | None = None,
    ) -> Module:
        return Module(
            id=id or _new_id(),
            title=title,
            module_number=module_number,
            lectures=lectures,
        )

    def find_lecture(self, lecture_id: str) -> Lecture | None:
        return next((lec for lec in self.lectures if lec.id == lecture_id), None)

    def lecture_ids(self) -> tuple[str, ...]:
        return tuple(lec.id for lec in self.lectures)


@dataclass(frozen=True, slots=True)
class Course:
    id: str
    title: str
    description: str
    price: float
    thumbnail: AssetRef
    modules: tuple[Module, ...] = ()
    created_at: int = field(default_factory=_now)
    updated_at: int = field(default_factory=_now)

    @staticmethod
    def new(
        *,
        title: str,
        description: str,
        price: float,
        thumbnail: AssetRef,
        modules: tuple[Module, ...] = (),
    ) -> Course:
        now = _now()
        return Course(
            id=_new_id(),
            title=title,
            description=description,
            price=price,
            thumbnail=thumbnail,
            modules=modules,
            created_at=now,
            updated_at=now,
        )

    # --- lookups -----------------------------------------------------------

    def find_module(self, module_id: str) -> Module | None:
        return next((m for m in self.modules if m.id == module_id), None)

    def lecture_sequence(self) -> tuple[str, ...]:
        """Every lecture ID in storage order: module order, then lecture order.

        This is the total order sequential unlocking is checked against.
        Derived on every call; catalog edits can reorder it.
        """
        return tuple(lec.id for m in self.modules for lec in m.lectures)

    def total_lectures(self) -> int:
        return sum(len(m.lectures) for m in self.modules)

    def max_module_number(self) -> int:
        return max((m.module_number for m in self.modules), default=0)

    # --- edits (each returns a new Course) ---------------------------------

    def with_modules(self, modules: tuple[Module, ...]) -> Course:
        return replace(self, modules=modules, updated_at=_now())

    def with_module(self, module: Module) -> Course:
        """Replace the module with the same ID, keeping its position."""
        return self.with_modules(
            tuple(module if m.id == module.id else m for m in self.modules)
        )

    def without_module(self, module_id: str) -> Course:
        return self.with_modules(tuple(m for m in self.modules if m.id != module_id))
