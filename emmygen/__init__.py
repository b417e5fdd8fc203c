"""Generate and check LuaCATS/EmmyLua annotation files for the LÖVE API."""

from .utils.env import load_env

# Environment defaults from `.env` must be visible before config is imported.
load_env()
