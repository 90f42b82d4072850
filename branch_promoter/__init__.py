"""
branch-promoter: promotion branches and pull requests between the stages
of a delivery pipeline.
"""

from branch_promoter.utils import promoter_version

__version__ = promoter_version()
