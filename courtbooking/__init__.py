"""Court booking: weekly slot grid, drag selection and manual payment review."""
