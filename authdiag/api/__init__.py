"""HTTP surface for AuthDiag"""
