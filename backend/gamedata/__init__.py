# Gamedata module
# Content catalog models and loader:
#   from gamedata.catalog import Catalog
