"""
Exchange Permutation Harness - Jobs Module

This module contains offline jobs for the harness:
- run_permutations: Run the scenario suite against the reference exchange

Reliability Level: Offline Job (Cold Path)
"""
