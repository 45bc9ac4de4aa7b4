"""Small terminal prompts for the import CLI (prompt_toolkit-based).

Kept apart from the wizard so they can be tested in isolation with a pipe
input and a dummy output.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.validation import Validator

from .models import TransferCandidate

YES_ANSWERS = frozenset({"y", "yes", "link"})
NO_ANSWERS = frozenset({"", "n", "no", "skip"})


def format_minor_units(amount: int) -> str:
    """Render signed cents as ``-$1,234.56``."""

    sign = "-" if amount < 0 else ""
    whole, cents = divmod(abs(amount), 100)
    return f"{sign}${whole:,}.{cents:02d}"


def _session(session: PromptSession | None, kb: KeyBindings) -> PromptSession:
    if session is None:
        return PromptSession(key_bindings=kb)
    # Reuse the caller's I/O (tests pass pipe input + dummy output).
    return PromptSession(
        input=getattr(session, "input", None),
        output=getattr(session, "output", None),
        key_bindings=kb,
    )


def _accept_completion_on_enter() -> KeyBindings:
    kb = KeyBindings()

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        b.validate_and_handle()

    return kb


def select_account(
    names: Sequence[str] | Iterable[str],
    *,
    default: str = "",
    message: str = "Import into account: ",
    session: PromptSession | None = None,
) -> str:
    """Prompt for one of ``names``.

    Matching is case-insensitive and a unique-enough prefix selects the first
    account it starts. Unknown input is rejected in place; an empty answer
    takes ``default``.
    """

    words = list(names)
    if not words:
        raise ValueError("no accounts to choose from")
    by_lower = {w.lower(): w for w in words}

    def _resolve(text: str) -> str | None:
        key = text.strip().lower()
        if not key:
            return by_lower.get(default.lower()) if default else None
        if key in by_lower:
            return by_lower[key]
        return next((w for w in words if w.lower().startswith(key)), None)

    validator = Validator.from_callable(
        lambda text: _resolve(text) is not None,
        error_message="Unknown account",
        move_cursor_to_end=True,
    )
    kb = _accept_completion_on_enter()
    sess = _session(session, kb)
    answer = sess.prompt(
        message,
        completer=WordCompleter(words, ignore_case=True, match_middle=True),
        validator=validator,
        validate_while_typing=False,
        default=default,
        key_bindings=kb,
    )
    resolved = _resolve(answer)
    assert resolved is not None  # guaranteed by the validator
    return resolved


def describe_transfer(
    candidate: TransferCandidate, account_names: Mapping[str, str] | None = None
) -> str:
    names = account_names or {}
    parts = []
    for tx in (candidate.transaction_a, candidate.transaction_b):
        account = names.get(tx.account_id, tx.account_id)
        payee = tx.payee or "(no payee)"
        parts.append(f"{tx.date} {payee} {format_minor_units(tx.amount)} [{account}]")
    return f"{parts[0]}  <->  {parts[1]}  ({candidate.confidence:.0%} match)"


def confirm_transfer(
    candidate: TransferCandidate,
    *,
    account_names: Mapping[str, str] | None = None,
    session: PromptSession | None = None,
) -> bool:
    """Ask whether to link ``candidate``; ``y``/``yes``/``link`` mean yes."""

    validator = Validator.from_callable(
        lambda text: text.strip().lower() in YES_ANSWERS | NO_ANSWERS,
        error_message="Answer y (link) or n (skip)",
        move_cursor_to_end=True,
    )
    kb = KeyBindings()
    sess = _session(session, kb)
    message = f"{describe_transfer(candidate, account_names)}\nLink as transfer? [y/N]: "
    answer = sess.prompt(message, validator=validator, validate_while_typing=False)
    return answer.strip().lower() in YES_ANSWERS


__all__ = [
    "confirm_transfer",
    "describe_transfer",
    "format_minor_units",
    "select_account",
]
