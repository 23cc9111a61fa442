"""VisionCare clinic core: patient identity reconciliation and consultation lifecycle."""
