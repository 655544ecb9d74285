"""
Parsing code for the TJA format, the plain text chart format read by Taiko no
Tatsujin simulators (TaikoJiro, TJAPlayer, taiko-web ...).
"""

from .load import load_tja, load_tja_file, select_branch
