# mafailover/cli/__init__.py
