"""islandchat - web-search augmented chat for a local Ollama server."""
