"""
hydrasect - speed up git bisect on nixpkgs using Hydra's evaluations.

Commits that Hydra has evaluated usually have their build outputs in the
binary cache. hydrasect keeps a local list of those commits and, during a
bisection, suggests the evaluated commits nearest to the one git picked.
"""

__version__ = "0.2.0"
