"""party-arena: registry and engines for short multiplayer party games."""
