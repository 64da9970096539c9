"""
Test support utilities for jobhost tests.

Helpers that are not fixtures: a fake Runtime API control plane and a set
of importable job functions used as ``module:function`` targets.
"""
