"""User-facing strings for islandchat."""


class IslandResponse:
    """Banner and result text shown to the user or fed back to the model."""

    # ── Startup ──
    WELCOME = "Welcome! Please enter your Ollama server address in settings."
    SELECT_MODEL = "Server connected! Now select a model in settings to start."
    READY = "Ready to chat."

    # ── Errors ──
    NO_MODEL_SELECTED = "No model selected. Please select one in settings."
    INVALID_SERVER_URL = "Invalid server URL format."
    SERVER_UNREACHABLE = "Server unreachable. Check your URL and API Key."
    MODEL_LOAD_FAILED = "Failed to load models: {error}"
    CONNECTION_ERROR = "Connection error: {error}"
    UNKNOWN_ERROR = "An unknown error occurred"

    # ── Search ──
    NO_RESULTS = "No results found."
    SEARCH_ERROR = "Search error: {error}"
    UNKNOWN_ENGINE = "Error: Unknown search engine type."
    JSON_RESULTS_PREFIX = "Search Results (JSON Raw):\n"
    TEXT_RESULTS_PREFIX = "Search Results:\n"
    POST_RESULTS_PREFIX = "Search Results (POST):\n"
