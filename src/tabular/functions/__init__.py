"""Function registry shared by built-ins and extensions."""
