from typing import List, Dict, Optional
from collections import defaultdict

MONTH_LABELS = [
    'janv.', 'févr.', 'mars', 'avr.', 'mai', 'juin',
    'juil.', 'août', 'sept.', 'oct.', 'nov.', 'déc.'
]


def _in_period(transaction: Dict, month: Optional[int], year: int) -> bool:
    date = transaction['date']
    if date.year != year:
        return False
    return month is None or date.month == month


def _sum_type(transactions: List[Dict], transaction_type: str) -> float:
    return sum(t['amount'] for t in transactions if t['type'] == transaction_type)


class AnalysisService:
    """
    Agrégats du tableau de bord et des statistiques
    Calculs purs sur des transactions déjà chargées, sous forme de dicts:
    {'type', 'amount', 'date' (datetime), 'category_id', 'category'}
    """

    def __init__(self):
        # Seuils du taux d'épargne (en pourcentage des revenus)
        self.savings_thresholds = {
            'excellent': 20,
            'good': 10
        }
        self.top_categories_count = 5

    def filter_period(self, transactions: List[Dict], year: int, month: Optional[int] = None) -> List[Dict]:
        """Garde les transactions d'une année, ou d'un mois de cette année"""
        return [t for t in transactions if _in_period(t, month, year)]

    def monthly_totals(self, transactions: List[Dict], month: int, year: int) -> Dict:
        """
        Revenus, dépenses et solde d'un mois
        """
        month_transactions = self.filter_period(transactions, year, month)
        income = _sum_type(month_transactions, 'INCOME')
        expenses = _sum_type(month_transactions, 'EXPENSE')

        return {
            'month': month,
            'year': year,
            'totalIncome': round(income, 2),
            'totalExpenses': round(expenses, 2),
            'balance': round(income - expenses, 2),
            'transactionCount': len(month_transactions)
        }

    def expenses_by_category(self, transactions: List[Dict]) -> List[Dict]:
        """
        Dépenses groupées par nom de catégorie, de la plus grosse à la plus petite
        """
        by_category = defaultdict(float)
        for transaction in transactions:
            if transaction['type'] == 'EXPENSE':
                by_category[transaction['category']] += transaction['amount']

        ordered = sorted(by_category.items(), key=lambda x: x[1], reverse=True)
        return [{'name': name, 'value': round(amount, 2)} for name, amount in ordered]

    def budget_progress(self, budgets: List[Dict], transactions: List[Dict]) -> List[Dict]:
        """
        Dépenses réelles de chaque budget sur son mois, avec le reste et le pourcentage consommé
        """
        spent_by_period = defaultdict(float)
        for transaction in transactions:
            if transaction['type'] != 'EXPENSE':
                continue
            date = transaction['date']
            spent_by_period[(transaction['category_id'], date.month, date.year)] += transaction['amount']

        summary = []
        for budget in budgets:
            spent = spent_by_period.get((budget['category_id'], budget['month'], budget['year']), 0)
            limit = budget['limit']
            percentage = (spent / limit * 100) if limit > 0 else 0

            summary.append({
                'id': budget['id'],
                'categoryId': budget['category_id'],
                'category': budget['category'],
                'month': budget['month'],
                'year': budget['year'],
                'limit': round(limit, 2),
                'spent': round(spent, 2),
                'remaining': round(limit - spent, 2),
                'percentage': round(percentage, 2),
                'exceeded': spent > limit,
                'overBy': round(max(spent - limit, 0), 2)
            })

        return summary

    def dashboard(self, transactions: List[Dict], budgets: List[Dict], month: int, year: int) -> Dict:
        """
        Vue du mois: totaux, répartition des dépenses et suivi des budgets
        """
        month_transactions = self.filter_period(transactions, year, month)
        result = self.monthly_totals(month_transactions, month, year)
        result['expensesByCategory'] = self.expenses_by_category(month_transactions)
        result['budgets'] = self.budget_progress(budgets, month_transactions)
        return result

    def yearly_statistics(self, transactions: List[Dict], year: int) -> Dict:
        """
        Statistiques annuelles: évolution mensuelle, top catégories, moyennes et taux d'épargne
        """
        year_transactions = self.filter_period(transactions, year)

        monthly_data = []
        for month in range(1, 13):
            totals = self.monthly_totals(year_transactions, month, year)
            monthly_data.append({
                'month': month,
                'label': MONTH_LABELS[month - 1],
                'income': totals['totalIncome'],
                'expenses': totals['totalExpenses'],
                'balance': totals['balance']
            })

        total_income = _sum_type(year_transactions, 'INCOME')
        total_expenses = _sum_type(year_transactions, 'EXPENSE')
        savings_rate = ((total_income - total_expenses) / total_income * 100) if total_income > 0 else 0

        top_categories = self.expenses_by_category(year_transactions)[:self.top_categories_count]

        # Premier mois en cas d'égalité
        month_with_most_expenses = monthly_data[0]
        for point in monthly_data[1:]:
            if point['expenses'] > month_with_most_expenses['expenses']:
                month_with_most_expenses = point

        available_years = sorted({t['date'].year for t in transactions}, reverse=True)

        return {
            'year': year,
            'monthlyData': monthly_data,
            'totalIncome': round(total_income, 2),
            'totalExpenses': round(total_expenses, 2),
            'averageMonthlyIncome': round(total_income / 12, 2),
            'averageMonthlyExpenses': round(total_expenses / 12, 2),
            'savingsRate': round(savings_rate, 2),
            'savingsRating': self.rate_savings(savings_rate),
            'topCategories': [{'category': c['name'], 'amount': c['value']} for c in top_categories],
            'monthWithMostExpenses': month_with_most_expenses,
            'availableYears': available_years,
            'transactionCount': len(year_transactions),
            'insights': self._generate_insights(
                savings_rate, total_income, total_expenses, top_categories, len(year_transactions)
            )
        }

    def rate_savings(self, savings_rate: float) -> str:
        if savings_rate >= self.savings_thresholds['excellent']:
            return 'excellent'
        if savings_rate >= self.savings_thresholds['good']:
            return 'good'
        return 'needs_improvement'

    def _generate_insights(self, savings_rate: float, total_income: float, total_expenses: float,
                           top_categories: List[Dict], transaction_count: int) -> Dict:
        """
        Points positifs et points d'amélioration
        """
        positives = []
        improvements = []

        if savings_rate > 0:
            positives.append(f'Vous épargnez {savings_rate:.1f}% de vos revenus')
        if total_income > total_expenses:
            positives.append('Vos revenus dépassent vos dépenses')
        if transaction_count > 0:
            positives.append('Vous suivez régulièrement vos finances')

        if savings_rate < self.savings_thresholds['good']:
            improvements.append("Essayez d'épargner au moins 10% de vos revenus")
        if top_categories:
            improvements.append(f"Votre plus grosse dépense : {top_categories[0]['name']}")
        improvements.append('Définissez des budgets pour mieux contrôler vos dépenses')

        return {
            'positives': positives,
            'improvements': improvements
        }
