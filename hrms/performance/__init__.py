"""Performance reviews with goals and competencies."""
