"""Request contracts for the JSON API.

Each endpoint body or query string is parsed into one of these models.
Unknown fields are dropped; any violation becomes a ValidationError whose
``details`` list names the offending field.
"""
from typing import Annotated, Any, List, Literal, Optional, Type, TypeVar
from uuid import UUID

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator

from memory_game.errors import ValidationError
from memory_game.services.games.content import get_categories

Difficulty = Literal['easy', 'medium', 'hard', 'expert']
Username = Annotated[str, StringConstraints(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9]+$")]

M = TypeVar('M', bound=BaseModel)


class _Contract(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore', str_strip_whitespace=True)


class StartGameRequest(_Contract):
    username: Username
    difficulty: Difficulty = 'easy'
    categories: Optional[List[str]] = Field(default=None, max_length=10)

    @field_validator('categories')
    @classmethod
    def _known_categories(cls, value):
        if value is None:
            return value
        known = set(get_categories())
        unknown = [c for c in value if c not in known]
        if unknown:
            raise ValueError(f"Unknown categories: {', '.join(unknown)}")
        return value


class MatchRequest(_Contract):
    game_id: UUID = Field(alias='gameId')
    card1_id: str = Field(alias='card1Id', min_length=1, max_length=100)
    card2_id: str = Field(alias='card2Id', min_length=1, max_length=100)
    match_time: Optional[int] = Field(default=None, alias='matchTime', ge=0, le=600000)

    @model_validator(mode='after')
    def _distinct_cards(self):
        if self.card1_id == self.card2_id:
            raise ValueError('A card cannot be matched with itself')
        return self


class CompleteRequest(_Contract):
    game_id: UUID = Field(alias='gameId')
    # Server-measured when omitted
    time_elapsed: Optional[int] = Field(default=None, alias='timeElapsed', ge=1000, le=1800000)
    # Accepted for compatibility; the server always recomputes the score
    final_score: Optional[int] = Field(default=None, alias='finalScore', ge=0, le=1000)


class CreateUserRequest(_Contract):
    username: Username
    email: Optional[str] = Field(default=None, max_length=100,
                                 pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
    display_name: Optional[str] = Field(default=None, alias='displayName', min_length=1, max_length=100)

    @field_validator('email', 'display_name', mode='before')
    @classmethod
    def _blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class PaginationQuery(_Contract):
    limit: int = Field(default=10, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class LeaderboardQuery(_Contract):
    limit: int = Field(default=10, ge=1, le=100)
    timeframe: Literal['all', 'week', 'month'] = 'all'


class RankQuery(_Contract):
    context: int = Field(default=5, ge=0, le=25)


class ScoresQuery(_Contract):
    include_history: bool = Field(default=False, alias='includeHistory')


def _field_name(model: Type[BaseModel], loc) -> str:
    parts = []
    for part in loc:
        if isinstance(part, str) and part in model.model_fields:
            alias = model.model_fields[part].alias
            parts.append(alias or part)
        else:
            parts.append(str(part))
    return '.'.join(parts)


def parse(model: Type[M], data: Any) -> M:
    """Validate ``data`` against ``model`` or raise ValidationError with field details."""
    if data is None:
        data = {}
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        details = []
        for error in exc.errors(include_url=False):
            message = error['msg']
            if message.startswith('Value error, '):
                message = message[len('Value error, '):]
            details.append({
                'field': _field_name(model, error['loc']) or 'body',
                'message': message,
                'value': error.get('input') if not isinstance(error.get('input'), dict) else None,
            })
        raise ValidationError(details=details) from None
