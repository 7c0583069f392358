"""Rank parameters, calculation context, calculation, rank state, search index and rank keeper."""