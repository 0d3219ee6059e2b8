"""
Core domain models, integer math primitives, contracts and errors.

This module contains the foundational building blocks that are independent
of external systems (price sources, transfer services, access control).
"""
