"""Cached game-session state.

The session cache holds one JSON document per session id. These dataclasses
are the typed view of that document; ``to_dict``/``from_dict`` use the
camelCase keys the frontend already speaks.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Card:
    id: str
    pair_id: str
    emoji: str
    name: str
    category: str
    position: int = 0
    is_flipped: bool = False
    is_matched: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'pairId': self.pair_id,
            'emoji': self.emoji,
            'name': self.name,
            'category': self.category,
            'position': self.position,
            'isFlipped': self.is_flipped,
            'isMatched': self.is_matched,
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Client view of the card, never with the pair identifier.

        The face (emoji, name, category) is only included once the card is
        flipped or matched.
        """
        data = {
            'id': self.id,
            'position': self.position,
            'isFlipped': self.is_flipped,
            'isMatched': self.is_matched,
        }
        if self.is_flipped or self.is_matched:
            data.update(self.face())
        return data

    def to_revealed_dict(self) -> Dict[str, Any]:
        """Client view of a card turned over by a match attempt."""
        return {
            'id': self.id,
            'position': self.position,
            **self.face(),
            'isFlipped': self.is_flipped,
            'isMatched': self.is_matched,
        }

    def face(self) -> Dict[str, Any]:
        return {'emoji': self.emoji, 'name': self.name, 'category': self.category}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Card':
        return cls(
            id=data['id'],
            pair_id=data['pairId'],
            emoji=data.get('emoji', ''),
            name=data.get('name', ''),
            category=data.get('category', ''),
            position=int(data.get('position') or 0),
            is_flipped=bool(data.get('isFlipped')),
            is_matched=bool(data.get('isMatched')),
        )


@dataclass
class MatchEvent:
    card1_id: str
    card2_id: str
    match_time: int
    points_earned: int
    bonus_points: int
    timestamp: int  # epoch ms, server clock

    def to_dict(self) -> Dict[str, Any]:
        return {
            'card1Id': self.card1_id,
            'card2Id': self.card2_id,
            'matchTime': self.match_time,
            'pointsEarned': self.points_earned,
            'bonusPoints': self.bonus_points,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MatchEvent':
        return cls(
            card1_id=data['card1Id'],
            card2_id=data['card2Id'],
            match_time=int(data.get('matchTime') or 0),
            points_earned=int(data.get('pointsEarned') or 0),
            bonus_points=int(data.get('bonusPoints') or 0),
            timestamp=int(data.get('timestamp') or 0),
        )


@dataclass
class SessionState:
    game_id: str
    user_id: str
    username: str
    difficulty: str
    cards: List[Card]
    start_time: int  # epoch ms
    matches: List[MatchEvent] = field(default_factory=list)
    score: int = 0
    moves: int = 0
    is_completed: bool = False
    completed_at: Optional[int] = None
    final_score: Optional[int] = None
    categories: Optional[List[str]] = None
    # Bumped on every cache write; used for the optimistic revision check
    revision: int = 0

    @property
    def total_pairs(self) -> int:
        return len(self.cards) // 2

    @property
    def matched_pairs(self) -> int:
        return len(self.matches)

    @property
    def all_pairs_matched(self) -> bool:
        return self.matched_pairs == self.total_pairs

    def find_card(self, card_id: str) -> Optional[Card]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'gameId': self.game_id,
            'userId': self.user_id,
            'username': self.username,
            'difficulty': self.difficulty,
            'categories': self.categories,
            'cards': [c.to_dict() for c in self.cards],
            'startTime': self.start_time,
            'matches': [m.to_dict() for m in self.matches],
            'score': self.score,
            'moves': self.moves,
            'isCompleted': self.is_completed,
            'completedAt': self.completed_at,
            'finalScore': self.final_score,
            'revision': self.revision,
        }

    def to_public_dict(self) -> Dict[str, Any]:
        data = self.to_dict()
        data['cards'] = [c.to_public_dict() for c in self.cards]
        data['matchesFound'] = self.matched_pairs
        data['totalPairs'] = self.total_pairs
        data['source'] = 'cache'
        del data['revision']
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionState':
        return cls(
            game_id=data['gameId'],
            user_id=data['userId'],
            username=data['username'],
            difficulty=data['difficulty'],
            categories=data.get('categories'),
            cards=[Card.from_dict(c) for c in data.get('cards', [])],
            start_time=int(data.get('startTime') or 0),
            matches=[MatchEvent.from_dict(m) for m in data.get('matches', [])],
            score=int(data.get('score') or 0),
            moves=int(data.get('moves') or 0),
            is_completed=bool(data.get('isCompleted')),
            completed_at=data.get('completedAt'),
            final_score=data.get('finalScore'),
            revision=int(data.get('revision') or 0),
        )
