"""burnchat: ephemeral anonymous group chat backend."""
