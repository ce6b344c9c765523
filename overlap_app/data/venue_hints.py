"""
Known stadium names for clubs whose venue is not named after the club.

Keys are club names as commonly written (matched accent- and case-
insensitively against a team's name, provider name, aliases and their
stripped variants). Values are venue names to try, most specific first.
"""

TEAM_VENUE_HINTS = {
    # La Liga
    'Barcelona': ['Camp Nou', 'Spotify Camp Nou', 'Estadi Olímpic Lluís Companys'],
    'Real Madrid': ['Santiago Bernabéu', 'Estadio Santiago Bernabéu'],
    'Atletico Madrid': ['Metropolitano', 'Wanda Metropolitano', 'Riyadh Air Metropolitano'],
    'Valencia': ['Mestalla', 'Estadio de Mestalla'],
    'Villarreal': ['Estadio de la Cerámica', 'Cerámica'],
    'Sevilla': ['Ramón Sánchez-Pizjuán', 'Estadio Ramón Sánchez Pizjuán'],
    'Celta Vigo': ['Balaídos', 'Abanca-Balaídos'],
    'Levante': ['Estadi Ciutat de València'],
    'Espanyol': ['RCDE Stadium', 'Estadi Cornellà-El Prat'],
    'Athletic Club': ['San Mamés', 'Estadio San Mamés'],
    'Real Betis': ['Benito Villamarín', 'Estadio Benito Villamarín'],
    'Getafe': ['Coliseum', 'Estadio Coliseum'],
    'Girona': ['Montilivi', 'Estadi Municipal de Montilivi'],
    'Real Sociedad': ['Reale Arena', 'Anoeta'],
    'Rayo Vallecano': ['Vallecas', 'Estadio de Vallecas'],
    'Elche': ['Martínez Valero', 'Estadio Manuel Martínez Valero'],
    'Mallorca': ['Son Moix', 'Estadi Mallorca Son Moix'],
    'Osasuna': ['El Sadar', 'Estadio El Sadar'],
    'Alaves': ['Mendizorroza', 'Estadio de Mendizorroza'],

    # Premier League
    'Arsenal': ['Emirates Stadium'],
    'Chelsea': ['Stamford Bridge'],
    'Liverpool': ['Anfield'],
    'Manchester United': ['Old Trafford'],
    'Manchester City': ['Etihad Stadium'],
    'Tottenham': ['Tottenham Hotspur Stadium'],
    'Newcastle': ["St. James' Park", 'St James Park'],
    'Everton': ['Goodison Park', 'Hill Dickinson Stadium'],
    'Aston Villa': ['Villa Park'],
    'West Ham': ['London Stadium'],

    # Bundesliga
    'Bayern München': ['Allianz Arena'],
    'Borussia Dortmund': ['Signal Iduna Park', 'Westfalenstadion'],
    'Bayer Leverkusen': ['BayArena'],
    'Eintracht Frankfurt': ['Deutsche Bank Park', 'Waldstadion'],
    'Schalke 04': ['Veltins-Arena'],

    # Serie A / Ligue 1 / Portugal
    'Juventus': ['Allianz Stadium', 'Juventus Stadium'],
    'Inter': ['San Siro', 'Stadio Giuseppe Meazza'],
    'AC Milan': ['San Siro', 'Stadio Giuseppe Meazza'],
    'Paris Saint Germain': ['Parc des Princes'],
    'Benfica': ['Estádio da Luz', 'Estádio do Sport Lisboa e Benfica'],
}

# Alternate spellings of country names used by venue records
COUNTRY_ALIASES = {
    'spain': ['España'],
    'germany': ['Deutschland'],
    'england': ['United Kingdom', 'UK'],
    'portugal': ['Portuguese Republic'],
    'netherlands': ['Holland', 'The Netherlands'],
    'usa': ['United States', 'United States of America'],
    'brazil': ['Brasil'],
}
