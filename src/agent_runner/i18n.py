# i18n.py
# User-facing strings and the process-wide generation locale.
#
# The generation locale is shared by every run in the process. Agents that
# force a locale check it out with llm_locale() and it is handed back on exit.

import threading
from contextlib import contextmanager
from typing import Iterator

from agent_runner.config import Configuration

DEFAULT_LOCALE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "chat.agent.status.starting": "Starting…",
        "chat.agent.status.inProgress": "Step {step} of {steps} in progress…",
        "generator.errors.cannotContinue": "\n\nSorry, I am not able to continue here.",
        "generator.errors.generationFailed": "Generation did not complete.",
        "generator.errors.apiKey": "You need to configure an API key for this engine before running agents.",
        "generator.errors.outOfCredits": "Sorry, it seems you have run out of credits. Check the balance of your LLM provider account.",
        "generator.errors.contextTooLong": "Sorry, it seems this message exceeds this model context length. Try to shorten your prompt or try another model.",
        "generator.errors.rateLimit": "Sorry, it seems you have reached the rate limit of your LLM provider account. Try again later.",
        "generator.errors.noText": "Sorry, I could not generate text for that prompt.",
        "generator.errors.emptyPrompt": "Step {step} has an empty prompt. Nothing to run.",
        "instructions.agent.docquery": (
            "Use the following context to answer. If the context does not help, say so.\n\n"
            "CONTEXT:\n{context}"
        ),
        "instructions.agent.structuredOutput": (
            "Reply only with a JSON document that follows this structure, with no other text:\n{jsonSchema}"
        ),
        "instructions.title": (
            "Give a title of at most 8 words to the conversation above. "
            "Reply with the title only, without quotes or punctuation at the end."
        ),
        "instructions.default": "You are a helpful assistant.",
    },
    "fr": {
        "chat.agent.status.starting": "Démarrage…",
        "chat.agent.status.inProgress": "Étape {step} sur {steps} en cours…",
        "generator.errors.cannotContinue": "\n\nDésolé, je ne peux pas continuer ici.",
        "generator.errors.generationFailed": "La génération n'a pas abouti.",
        "generator.errors.emptyPrompt": "L'étape {step} a un prompt vide. Rien à exécuter.",
        "instructions.agent.docquery": (
            "Utilise le contexte suivant pour répondre. Si le contexte n'aide pas, dis-le.\n\n"
            "CONTEXTE :\n{context}"
        ),
        "instructions.agent.structuredOutput": (
            "Réponds uniquement avec un document JSON qui suit cette structure, sans autre texte :\n{jsonSchema}"
        ),
        "instructions.title": (
            "Donne un titre de 8 mots au plus à la conversation ci-dessus. "
            "Réponds uniquement avec le titre."
        ),
        "instructions.default": "Tu es un assistant serviable.",
    },
}

_llm_locale: str = ""

# active llm_locale() blocks, innermost last, and what to hand back once the
# last one exits
_lock = threading.Lock()
_checkouts: list[tuple[object, str, Configuration]] = []
_original_locale: str = ""
_original_force: dict[int, bool] = {}


def get_llm_locale() -> str:
    return _llm_locale


def set_llm_locale(locale: str) -> None:
    global _llm_locale
    _llm_locale = locale


def _lookup(locale: str, key: str) -> str:
    return MESSAGES.get(locale, {}).get(key) or MESSAGES[DEFAULT_LOCALE].get(key, key)


def t(key: str, **params) -> str:
    """Translate a user-facing string in the generation locale, English when none is set."""
    text = _lookup(get_llm_locale() or DEFAULT_LOCALE, key)
    return text.format(**params) if params else text


def i18n_instructions(config: Configuration, key: str) -> str:
    """
    Instructions sent to the model.

    Configuration overrides win. Otherwise the generation locale is used when
    it is forced, the configured llm locale when set, and English last.
    """
    override = config.instructions.get(key)
    if override:
        return override
    locale = DEFAULT_LOCALE
    if config.llm.force_locale and get_llm_locale():
        locale = get_llm_locale()
    elif config.llm.locale:
        locale = config.llm.locale
    return _lookup(locale, key)


def _check_out(config: Configuration, locale: str) -> object:
    global _original_locale
    token = object()
    with _lock:
        if not _checkouts:
            _original_locale = get_llm_locale()
        if all(entry[2] is not config for entry in _checkouts):
            _original_force[id(config)] = config.llm.force_locale
        _checkouts.append((token, locale, config))
        set_llm_locale(locale)
        config.llm.force_locale = True
    return token


def _hand_back(token: object, config: Configuration) -> None:
    with _lock:
        _checkouts[:] = [entry for entry in _checkouts if entry[0] is not token]
        if all(entry[2] is not config for entry in _checkouts):
            config.llm.force_locale = _original_force.pop(id(config), False)
        set_llm_locale(_checkouts[-1][1] if _checkouts else _original_locale)


@contextmanager
def llm_locale(config: Configuration, locale: str | None) -> Iterator[None]:
    """
    Force `locale` for generation for the duration of the block.

    Blocks may overlap across threads. While any block is open the locale is
    the one of the most recently entered block still open. The locale and
    force flag seen before the first block are restored when the last exits.
    """
    if not locale:
        yield
        return
    token = _check_out(config, locale)
    try:
        yield
    finally:
        _hand_back(token, config)
