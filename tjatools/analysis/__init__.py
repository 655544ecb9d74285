"""
Chart analysis : note counts, theoretical max score, roll and balloon
durations and note density of a parsed course
"""

from .analyser import analyse
from .density import DensityBin, DensityTable, bin_notes
from .stats import BalloonRecord, RollRecord, Statistics, compute_statistics
