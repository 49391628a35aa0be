"""VisitingVet marketplace API"""
