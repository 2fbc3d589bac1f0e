"""Reconciles cloud resources with Terraform state before apply."""

__version__ = "0.1.0"
