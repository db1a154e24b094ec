"""Core domain logic: loop, classifier, planner and plan coordination."""
