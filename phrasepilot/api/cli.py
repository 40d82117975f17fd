"""
Interactive terminal front end for PhrasePilot.

Architectural role:
- Presentation collaborator over the rephrase core.
- Reads the stored configuration (overlaid with `PHRASEPILOT_*` env vars),
  builds one adapter per settings change, and renders results.

Interface responsibilities:
- Rephrase plain input lines and print the result or the error message.
- Expose local commands for model discovery, temperature and setup state.

Request lifecycle (per input line):
1. Read stdin.
2. Handle local commands (`exit`/`quit`, `/models`, `/temp`, `/config`,
   `/connect`, `/reset`, `/help`).
3. Send anything else to `adapter.rephrase(text, {"temperature": ...})`.
4. Print `rephrased_text`, or `error_message` on failure.

One-shot mode:
- `phrasepilot some text` rephrases the arguments once and exits with status 1
  on failure.

Error handling strategy:
- Adapter failures arrive as result values; nothing is caught here.
- Invalid `/temp` values are rejected locally.
- Store write failures during `/connect` or `/reset` are reported, not raised.
- EOF and keyboard interrupts terminate the loop without traceback output.
"""

from dotenv import load_dotenv

load_dotenv()

import logging
import os
import sys

from phrasepilot.llm.provider_config import DEFAULT_TEMPERATURE, LLMConfig, load_config_from_env
from phrasepilot.llm.service import complete_setup, create_service, missing_setup_fields, rephrase_text
from phrasepilot.storage.config_store import ConfigStore


logger = logging.getLogger(__name__)

HELP_TEXT = """Commands:
 /models        list models offered by the active provider
 /temp [value]  show or set the sampling temperature
 /config        show the active configuration
 /connect       test the connection and save the configuration
 /reset         clear the saved configuration
 exit | quit    leave
Anything else is rephrased."""


# =========================================================
# UTF-8 SAFE OUTPUT
# Best-effort stdout encoding normalization for interactive terminals.
# =========================================================

if hasattr(sys.stdout, "reconfigure"):
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="ignore")
    except Exception:
        pass


def configure_logging():
    level = os.getenv("PHRASEPILOT_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_active_config(store: ConfigStore) -> LLMConfig:
    """Stored config with environment overrides applied."""
    return load_config_from_env(store.get_config())


def print_config(config: LLMConfig):
    for key, value in config.redacted().items():
        print(f" {key}: {value}")


def rephrase_once(config: LLMConfig, text: str, temperature: float) -> bool:
    """Rephrase `text`, print the outcome, and report success."""
    result = rephrase_text(config, text, temperature)
    if result.ok:
        print(result.rephrased_text)
        return True
    print(f"Error: {result.error_message}")
    return False


# =========================================================
# MAIN
# =========================================================

def main():
    """
    Run one-shot mode or the interactive loop.

    Error handling strategy:
    - Store read failures already degrade to the default config.
    - EOF/interrupt are handled without stack traces.
    """
    configure_logging()

    store = ConfigStore()
    config = load_active_config(store)
    temperature = DEFAULT_TEMPERATURE

    if len(sys.argv) > 1:
        text = " ".join(sys.argv[1:]).strip()
        if not text:
            return 0
        return 0 if rephrase_once(config, text, temperature) else 1

    print("PhrasePilot started. (Type '/help' for commands, 'exit' to quit)")
    print(f"Provider: {config.provider} | Model: {config.model_identifier}")
    if not store.is_configured():
        print("Not configured yet. Set PHRASEPILOT_* variables and run /connect.")
    print("-" * 60)

    service = create_service(config)

    while True:

        try:
            line = input("Text: ").strip()

        except EOFError:
            print()
            break

        except KeyboardInterrupt:
            print("\nOperation cancelled by user.")
            break

        if not line:
            continue

        command = line.lower()

        if command in ("exit", "quit"):
            break

        if command == "/help":
            print(HELP_TEXT)
            continue

        if command == "/models":
            models = service.list_models()
            if not models:
                print("No models found (connection failed or provider returned none).")
            for model in models:
                marker = " (active)" if model == config.model_identifier else ""
                print(f" - {model}{marker}")
            continue

        if command.startswith("/temp"):
            parts = line.split()
            if len(parts) == 1:
                print(f"Temperature: {temperature}")
                continue
            try:
                value = float(parts[1])
            except ValueError:
                print(f"Invalid temperature: {parts[1]}")
                continue
            if not 0.0 <= value <= 2.0:
                print("Temperature must be between 0 and 2.")
                continue
            temperature = value
            print(f"Temperature set to {temperature}")
            continue

        if command == "/config":
            print_config(config)
            continue

        if command == "/connect":
            missing = missing_setup_fields(config)
            if missing:
                print(f"Cannot connect: missing {', '.join(missing)}")
                continue
            try:
                saved = complete_setup(config, store)
            except OSError as e:
                print(f"Could not save configuration: {e}")
                continue
            if saved:
                # Rebuild from storage so the adapter sees the saved snapshot.
                config = load_active_config(store)
                service = create_service(config)
                print("Connection successful. Configuration saved.")
            else:
                print("Connection failed: no models were found.")
            continue

        if command == "/reset":
            try:
                store.clear_config()
            except OSError as e:
                print(f"Could not clear configuration: {e}")
                continue
            config = load_active_config(store)
            service = create_service(config)
            print("Configuration cleared.")
            continue

        result = service.rephrase(line, {"temperature": temperature})
        if result.ok:
            print(f"\n{result.rephrased_text}\n")
        else:
            print(f"\nError: {result.error_message}\n")

    return 0


if __name__ == "__main__":
    sys.exit(main())
