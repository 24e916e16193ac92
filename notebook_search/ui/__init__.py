"""Qt front end: notebook view, search overlay and the window hosting them."""
