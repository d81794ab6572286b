"""QuestSheet - task, completion log and player registry API over a spreadsheet store."""

__version__ = "0.3.0"
