# Reference Cart Service
