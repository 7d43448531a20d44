import threading

import pytest

from agent_runner.config import Configuration, LlmConfig
from agent_runner.i18n import get_llm_locale, i18n_instructions, llm_locale, set_llm_locale, t


@pytest.fixture(autouse=True)
def reset_locale():
    set_llm_locale("")
    yield
    set_llm_locale("")


def test_t_formats_params():
    assert t("chat.agent.status.inProgress", step=2, steps=3) == "Step 2 of 3 in progress…"


def test_t_unknown_key_returns_key():
    assert t("does.not.exist") == "does.not.exist"


def test_instructions_follow_configuration():
    assert i18n_instructions(Configuration(), "instructions.default") == "You are a helpful assistant."
    french = Configuration(llm=LlmConfig(locale="fr"))
    assert i18n_instructions(french, "instructions.default") == "Tu es un assistant serviable."


def test_instruction_overrides_win():
    config = Configuration(instructions={"instructions.default": "Be terse."})
    with llm_locale(config, "fr"):
        assert i18n_instructions(config, "instructions.default") == "Be terse."


def test_missing_translation_falls_back_to_english():
    config = Configuration(llm=LlmConfig(locale="fr"))
    assert i18n_instructions(config, "generator.errors.noText") == t("generator.errors.noText")


def test_llm_locale_is_scoped():
    config = Configuration()
    set_llm_locale("de")

    with llm_locale(config, "fr"):
        assert get_llm_locale() == "fr"
        assert config.llm.force_locale is True
        assert i18n_instructions(config, "instructions.default") == "Tu es un assistant serviable."

    assert get_llm_locale() == "de"
    assert config.llm.force_locale is False


def test_llm_locale_restores_on_error():
    config = Configuration()
    with pytest.raises(RuntimeError):
        with llm_locale(config, "fr"):
            raise RuntimeError("boom")
    assert get_llm_locale() == ""
    assert config.llm.force_locale is False


def test_t_follows_generation_locale():
    config = Configuration()
    with llm_locale(config, "fr"):
        assert t("chat.agent.status.starting") == "Démarrage…"
        assert t("generator.errors.emptyPrompt", step=2) == "L'étape 2 a un prompt vide. Rien à exécuter."
        # no French entry
        assert t("generator.errors.apiKey").startswith("You need to configure")
    assert t("chat.agent.status.starting") == "Starting…"


def test_overlapping_locales_across_threads_restore_original():
    config = Configuration()
    first_entered, second_entered, first_left = threading.Event(), threading.Event(), threading.Event()
    seen = {}

    def first():
        with llm_locale(config, "fr"):
            first_entered.set()
            second_entered.wait(5)
        first_left.set()

    def second():
        first_entered.wait(5)
        with llm_locale(config, "de"):
            second_entered.set()
            first_left.wait(5)
            seen["after_first_left"] = (get_llm_locale(), config.llm.force_locale)

    threads = [threading.Thread(target=first), threading.Thread(target=second)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    assert seen["after_first_left"] == ("de", True)
    assert get_llm_locale() == ""
    assert config.llm.force_locale is False


def test_llm_locale_without_locale_changes_nothing():
    config = Configuration()
    with llm_locale(config, ""):
        assert get_llm_locale() == ""
        assert config.llm.force_locale is False
