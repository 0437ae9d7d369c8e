"""
Utils: password_pool.py
Rôle:
- Nettoyer la soumission de mots de passe d'un joueur.
- Distribuer un mot de passe par joueur depuis le pool commun, sans que personne
  ne reçoive un mot qu'il a lui-même proposé (dérangement).

Comportement:
- `clean_submission` trim les entrées, retire les vides et les doublons (insensible à la casse,
  on garde la première orthographe).
- `assign_passwords` parcourt les joueurs dans l'ordre du tour; chacun tire uniformément parmi
  les entrées restantes proposées par quelqu'un d'autre (et dont il n'a pas proposé le texte).
  L'entrée tirée sort du pool.
- Le tirage glouton peut tomber dans une impasse alors qu'un dérangement existe (ex: le dernier
  joueur n'a plus que son propre mot). On lève alors `InsufficientPasswords` (retryable).
- `seed` / `rng` permettent de rejouer le tirage (déterministe pour tests / replays).
"""
import random
from typing import Dict, Iterable, List, Optional, Tuple

from app.models.player import Player
from app.services.errors import InsufficientPasswords

PoolEntry = Tuple[str, str]  # (password, submitter)


def clean_submission(words: Iterable[str]) -> List[str]:
    cleaned: List[str] = []
    seen = set()
    for word in words or []:
        text = " ".join(str(word).split())
        if not text:
            continue
        folded = text.casefold()
        if folded in seen:
            continue
        seen.add(folded)
        cleaned.append(text)
    return cleaned


def build_pool(players: Iterable[Player]) -> List[PoolEntry]:
    """Pool global de paires (mot, auteur), dans l'ordre du tour puis de soumission."""
    return [(word, player.name) for player in players for word in player.submitted_passwords]


def assign_passwords(
    players: List[Player],
    rng: Optional[random.Random] = None,
    seed: Optional[int] = None,
) -> Dict[str, str]:
    """
    Distribue un mot de passe à chaque joueur (dans l'ordre donné).

    Returns:
        Dict[str, str]: nom du joueur -> mot de passe attribué.

    Raises:
        InsufficientPasswords: un joueur n'a plus aucun candidat valide.
    """
    if rng is None:
        rng = random.Random(seed) if seed is not None else random
    pool = build_pool(players)
    assigned: Dict[str, str] = {}

    for player in players:
        own = player.submitted_folded()
        candidates = [
            index for index, (word, submitter) in enumerate(pool)
            if submitter != player.name and word.casefold() not in own
        ]
        if not candidates:
            raise InsufficientPasswords(
                f"No password left for {player.name!r} that they did not submit themselves"
            )
        word, _ = pool.pop(rng.choice(candidates))
        assigned[player.name] = word

    return assigned
