"""
Models / question.py
Role:
- One exchange: the active player's question and the answers collected from everyone else.

Lifecycle:
- created open (`is_complete=False`) by AskQuestion,
- filled one answer at a time by AnswerQuestion,
- frozen once every non-asker answered (the turn moves on at that moment).
A winning guess is stored already complete, with the password token it hit in `matched_token`.
"""
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Question(BaseModel):
    id: int
    asker: str
    text: str
    answers: Dict[str, str] = Field(default_factory=dict)
    is_complete: bool = False
    matched_token: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def missing_responders(self, player_names: Iterable[str]) -> List[str]:
        """Players (other than the asker) who have not answered yet, in the given order."""
        return [name for name in player_names if name != self.asker and name not in self.answers]
