"""Page façades for the application under test."""

from qa_runner.pages.base import BasePage

__all__ = ["BasePage"]
