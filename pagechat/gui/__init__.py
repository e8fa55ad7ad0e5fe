"""Qt front-end for the PDF selection viewer."""
