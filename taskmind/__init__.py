"""taskmind — task, memory and priority assistant core."""
