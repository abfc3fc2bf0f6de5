"""Payroll calculation engine.

Submodules are imported directly (``ca_payroll.calculators.engine`` etc.);
the domain records depend on ``calculators.types``, so this package keeps
no eager imports.
"""
