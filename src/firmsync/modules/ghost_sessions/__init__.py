"""Ghost sessions module - time-boxed admin access into one firm."""
